"""Images, pooling and segmentation layers, configuration options and weight files for a darknet-style network toolkit."""

__version__ = "0.1.0"