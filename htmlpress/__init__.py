"""
htmlpress - HTML to PDF conversion through an external wkhtmltopdf process

Drives the wkhtmltopdf binary over its standard streams: HTML goes in on stdin,
PDF comes back on stdout, diagnostics arrive line by line on stderr.

Architecture:
- Settings Context: Conversion options, presets, command-line serialization
- Rendering Context: Process supervision, exit classification, document pipeline
"""

__version__ = "0.1.0"
