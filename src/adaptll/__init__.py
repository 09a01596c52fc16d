from .atn import *
from .config import *
from .decision import *
from .error_listeners import *
from .errors import *
from .parser import *
from .prediction import *
from .recognizer import *
from .simulator import *
from .strategy import *
from .tokens import *
from .tree import *

__version__ = "0.1.0"

__all__ = (
    # atn
    "INVALID_ALT_NUMBER",
    "ATN",
    "ATNState",
    "StateKind",
    "Transition",
    "TransitionKind",
    # config
    "EMPTY_RETURN_STATE",
    "PredictionContext",
    "SemanticContext",
    "Predicate",
    "PrecedencePredicate",
    "AND",
    "OR",
    "ATNConfig",
    "ATNConfigSet",
    "ConfigSetFrozenError",
    # decision
    "AdaptivePredictor",
    # error_listeners
    "ErrorListener",
    "ConsoleErrorListener",
    "ProxyErrorListener",
    "DiagnosticErrorListener",
    # errors
    "FailureKind",
    "RecognitionError",
    "NoViableAltError",
    "InputMismatchError",
    "FailedPredicateError",
    "ParseCancellationError",
    # parser
    "ParserLogger",
    "BypassAltsRegistry",
    "TraceListener",
    "TrimToSizeListener",
    "Parser",
    # prediction
    "AltSubset",
    "PredictionMode",
    "should_terminate_prediction",
    "has_config_in_rule_stop_state",
    "all_configs_in_rule_stop_states",
    "get_conflicting_alt_subsets",
    "get_state_to_alt_map",
    "has_state_associated_with_one_alt",
    "has_non_conflicting_alt_set",
    "has_conflicting_alt_set",
    "all_subsets_conflict",
    "all_subsets_equal",
    "get_alts",
    "get_unique_alt",
    "get_single_viable_alt",
    "resolves_to_just_one_viable_alt",
    # recognizer
    "Recognizer",
    # simulator
    "PredictionSimulator",
    "LookaheadSimulator",
    # strategy
    "ErrorStrategy",
    "DefaultErrorStrategy",
    "BailErrorStrategy",
    # tokens
    "EOF",
    "EPSILON",
    "INVALID_TYPE",
    "MIN_USER_TOKEN_TYPE",
    "Token",
    "TokenStream",
    "BufferedTokenStream",
    # tree
    "ParseTree",
    "TerminalNode",
    "ErrorNode",
    "RuleContext",
    "ParserRuleContext",
    "ParseTreeListener",
    "escape_whitespace",
)
