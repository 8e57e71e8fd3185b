# Sphinx configuration for the pgtablewatch documentation.
# https://www.sphinx-doc.org/en/master/usage/configuration.html

project = "pgtablewatch"
copyright = "2024, JeeyBee"
author = "JeeyBee"

extensions = ["myst_parser", "sphinx.ext.autodoc"]
source_suffix = {".md": "markdown"}
root_doc = "index"
exclude_patterns = ["_build"]

pygments_style = "sphinx"
html_theme = "sphinx_rtd_theme"
