"""
ppl_kit: initialization and step protocol for inference on probabilistic programs.

Submodules
----------
distributions : distributions with support transforms
model         : model evaluator and log-density helpers
store         : variable store
selector      : ownership tags
strategies    : initialization strategies
sampling      : step protocol, algorithms, configs and registry
"""

__version__ = '0.1.0'
