"""Perseus static site generator.

Perseus turns a tree of source documents (pages, collections, data and
components) into rendered output files. Each source document becomes one or
more locale-specific resources with a unique permalink, rendered through
pluggable template engines.

The main entry point is the CLI module; programmatic builds go through
``perseus.build.build_site`` or ``perseus.site.Site``.
"""

import logging

__all__ = ["__version__"]
__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
