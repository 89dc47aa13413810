from .viewmodel_factory import CollectionViewFactory

__all__ = ["CollectionViewFactory"]
