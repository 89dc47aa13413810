from .collection_grid_model import CollectionGridModel
from .collection_table_model import CollectionTableModel
from .roles import Roles, role_names

__all__ = ["CollectionGridModel", "CollectionTableModel", "Roles", "role_names"]
