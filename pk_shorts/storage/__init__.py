"""Transactional bucket backends and the LinkStore built on them."""
