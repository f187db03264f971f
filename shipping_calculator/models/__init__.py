from shipping_calculator.models.collection_size import CollectionSize
from shipping_calculator.models.fedex_session import FedexSession

__all__ = ["CollectionSize", "FedexSession"]
