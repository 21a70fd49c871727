"""
Stateless CPU kernels over flat float32 buffers plus 4-axis shape metadata.
"""
