# DEM decoding and mosaic assembly
from dem.builder import assemble_dem, crop_window, mask_negative, merge_tiles
from dem.decoder import decode_tile, read_geotiff_band

__all__ = [
    'assemble_dem',
    'crop_window',
    'decode_tile',
    'mask_negative',
    'merge_tiles',
    'read_geotiff_band',
]
