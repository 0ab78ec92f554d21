"""
hdlnav - lexical navigation for Verilog/SystemVerilog source trees.

Subpackages:
    hdlnav.services  - Catalog, hierarchy builder, driver/load resolver, outline
    hdlnav.core      - Source file collection and background build worker
    hdlnav.session   - NavigationSession, the explicit per-host navigation context
"""

__version__ = "1.0.0"
