"""Reusable parameter validators."""

from typing import Annotated

from fastapi import Path, Query

# Positive integer ID validator for path parameters
PositiveIntId = Annotated[int, Path(gt=0, description="Resource ID (must be positive)")]

# Tenant identifier carried by every scoped query
RestaurantIdQuery = Annotated[
    str, Query(min_length=1, max_length=64, description="Restaurant (tenant) identifier")
]

RestaurantIdPath = Annotated[
    str, Path(min_length=1, max_length=64, description="Restaurant (tenant) identifier")
]

DeviceIdQuery = Annotated[str, Query(min_length=1, max_length=128)]
