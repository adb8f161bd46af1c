# Sphinx configuration for the grouprate API reference.
#
# Build from the repository root with:
#     sphinx-build -b html docs/source docs/build

import os
import sys

# Import the package from the source tree, not an installed copy
sys.path.insert(0, os.path.abspath('../..'))
import grouprate

project = 'grouprate'
release = grouprate.__version__
version = '.'.join(release.split('.')[:2])

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
    'sphinx_copybutton',
]

# Every module docstring is numpy style, with extra Methods/Attributes blocks
napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_use_rtype = False
napoleon_custom_sections = ['Methods']

autosummary_generate = True
autodoc_member_order = 'bysource'
autodoc_typehints = 'description'
autodoc_default_options = {
    'members': True,
    'show-inheritance': True,
}

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
    'construct': ('https://construct.readthedocs.io/en/latest/', None),
}

# Strip doctest prompts from the module docstring examples
copybutton_prompt_text = r">>> |\.\.\. "
copybutton_prompt_is_regexp = True

html_theme = 'sphinx_rtd_theme'
html_show_copyright = False
html_theme_options = {
    'navigation_depth': 3,
    'collapse_navigation': False,
}
