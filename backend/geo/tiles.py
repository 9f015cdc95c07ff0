from __future__ import annotations


# Top of ClusterOptions' zoom range.
MAX_TILE_ZOOM = 30


def is_valid_tile(zoom: int, x: int, y: int) -> bool:
    z = int(zoom)
    if z < 0 or z > MAX_TILE_ZOOM:
        return False
    n = 2**z
    return 0 <= int(x) < n and 0 <= int(y) < n


def tile_unit_bounds(
    zoom: int, x: int, y: int, *, pad: float = 0.0
) -> tuple[float, float, float, float]:
    """
    Slippy tile (z/x/y) bounds in the unit Web Mercator square.

    `pad` is in tile units (e.g. radius / extent) and widens every edge.
    Returns (min_x, min_y, max_x, max_y); y grows southwards.
    """
    n = float(2 ** int(zoom))
    return (
        (int(x) - pad) / n,
        (int(y) - pad) / n,
        (int(x) + 1 + pad) / n,
        (int(y) + 1 + pad) / n,
    )
