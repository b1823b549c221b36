"""
velosync - VeloServe virtual-host registry synchronizer

Keeps the VeloServe virtual-host registry in step with cPanel/WHM lifecycle
hooks and switches ports 80/443 between Apache and VeloServe.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
