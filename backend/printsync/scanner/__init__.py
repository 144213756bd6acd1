# Scanner module
from .address_math import Subnet, enumerate_local_subnets, host_addresses
from .neighbor_cache import NeighborCache, NeighborTableEntry
from .subnet_scanner import SubnetScanner

__all__ = [
    "Subnet",
    "enumerate_local_subnets",
    "host_addresses",
    "NeighborCache",
    "NeighborTableEntry",
    "SubnetScanner",
]
