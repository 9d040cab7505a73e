"""gardenpub: publish a wiki-linked digital garden and a blog as a static site."""

__version__ = "0.1.0"
