"""Extractors — build the registration model from a handler module or a descriptor.

- reflection: from handler descriptors produced by a module scan
- python_scanner: the AST-based scan step for Python handler modules
- descriptor_xml: from an XML registration descriptor
"""
