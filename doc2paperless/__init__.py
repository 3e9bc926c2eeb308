# doc2paperless
# Watches a consume folder and uploads stable files to a Paperless instance.

__version__ = "0.1.0"
