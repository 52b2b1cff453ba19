"""sshs: search the hosts of your SSH config and connect to them."""

__version__ = "0.1.0"
