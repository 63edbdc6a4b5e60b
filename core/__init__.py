"""
PixelDrift -- Core
Parameters, segmentation, particle simulation, rasterizer and engine.
"""
