from collection_filter.facade.core import CollectionFilter

__all__ = ["CollectionFilter"]
