"""
hsse_services -- stateful services that wire the kernel to the outside.

Architecture position:
    Services layer.  May import from ``hsse_kernel`` and ``hsse_config``;
    neither of those may import from here.
"""
