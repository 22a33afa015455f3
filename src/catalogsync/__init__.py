"""CatalogSync - 可断点续传的目录同步与资源镜像."""

__version__ = "0.1.0"
