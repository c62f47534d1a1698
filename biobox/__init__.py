"""BioBox: painel de gestão de produção (pedidos, fragmentos e cadastros)."""

__version__ = "1.0.0"
