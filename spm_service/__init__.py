"""SPM taxonomy service - portfolio / line / category hierarchy and product catalogue."""

__version__ = "0.1.0"
