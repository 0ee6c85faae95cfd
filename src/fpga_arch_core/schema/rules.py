# src/fpga_arch_core/schema/rules.py
"""
Declarative attribute schemas for every element of the architecture dialect.

XML attributes always arrive as strings, so each rule coerces first and type-checks
second. Every schema is validated with `allow_unknown=True`: attributes that are not
listed here are not an error, they are carried into the record's extension bag by
the mapper.
"""
import logging
import re
from typing import Any, Dict

import cerberus

logger = logging.getLogger(__name__)

# Names must survive the port-range syntax `block[i:j].port[k:l]`.
IDENTIFIER_FORBIDDEN_REGEX = re.compile(r"[\s.\[\]:]")

# Placement formulas: grid/tile dimensions, integers, arithmetic and parentheses.
FORMULA_REGEX = r"^[\sWHwh0-9+\-*/()]+$"

# Comma-separated switchpoint offsets, e.g. "0,2".
SWITCHPOINT_LIST_REGEX = r"^\s*-?\d+\s*(,\s*-?\d+\s*)*$"

_TRUE_STRINGS = frozenset({"true", "on", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "off", "0", "no"})


class EnhancedValidator(cerberus.Validator):
    """Cerberus validator with the dialect's naming rule and boolean spellings."""

    def _validate_identifier(self, constraint: bool, field: str, value: Any):
        """
        Rejects names that would be ambiguous inside a port-range reference.
        The rule's arguments are validated against this schema:
        {'type': 'boolean'}
        """
        if not constraint or not isinstance(value, str):
            return
        bad = sorted(set(IDENTIFIER_FORBIDDEN_REGEX.findall(value)))
        if bad:
            self._error(
                field,
                f"Identifier '{value}' is invalid. Names may not contain whitespace, '.', '[', ']' or ':'. "
                f"Found forbidden character(s): {bad}",
            )

    def _validate_positive(self, constraint: bool, field: str, value: Any):
        """
        The rule's arguments are validated against this schema:
        {'type': 'boolean'}
        """
        if constraint and isinstance(value, (int, float)) and not isinstance(value, bool) and value <= 0:
            self._error(field, f"must be positive, got {value}")

    def _normalize_coerce_bool(self, value):
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"Invalid boolean value: {value}")

    def _normalize_coerce_strip(self, value):
        return value.strip() if isinstance(value, str) else value


# --- Reusable rule fragments ---

_name_rule = {"type": "string", "required": True, "empty": False, "identifier": True}
_str_rule = {"type": "string", "empty": False}
_opt_str_rule = {"type": "string", "nullable": True}
_int_rule = {"type": "integer", "coerce": int}
_positive_int_rule = {"type": "integer", "coerce": int, "positive": True}
_number_rule = {"type": "number", "coerce": float}
_bool_rule = {"type": "boolean", "coerce": "bool"}
_formula_rule = {"type": "string", "coerce": "strip", "empty": False, "regex": FORMULA_REGEX}


def _with(rule: Dict[str, Any], **extra) -> Dict[str, Any]:
    merged = dict(rule)
    merged.update(extra)
    return merged


# --- Per-element schemas, keyed by a schema name (usually the tag) ---

ELEMENT_SCHEMAS: Dict[str, Dict[str, Any]] = {
    # models
    "model": {
        "name": _with(_str_rule, required=True),
        "never_prune": _with(_bool_rule, default=False),
    },
    "model_port": {
        "name": _with(_str_rule, required=True),
        "is_clock": _with(_bool_rule, default=False),
        "clock": _str_rule,
        "combinational_sink_ports": {"type": "string"},
    },

    # tiles
    "tile": {
        "name": _name_rule,
        "width": _with(_positive_int_rule, default=1),
        "height": _with(_positive_int_rule, default=1),
        "area": _number_rule,
        "capacity": _with(_positive_int_rule, default=1),
    },
    "sub_tile": {
        "name": _name_rule,
        "capacity": _with(_positive_int_rule, default=1),
    },
    "site": {
        "pb_type": _with(_str_rule, required=True),
        "pin_mapping": {"type": "string", "allowed": ["direct", "custom"], "default": "direct"},
    },
    "tile_port": {
        "name": _name_rule,
        "num_pins": _with(_positive_int_rule, required=True),
        "equivalent": {"type": "string", "allowed": ["none", "full", "instance"], "default": "none"},
        "is_non_clock_global": _with(_bool_rule, default=False),
    },
    "fc": {
        "in_type": {"type": "string", "required": True, "allowed": ["frac", "abs"]},
        "in_val": _with(_number_rule, required=True),
        "out_type": {"type": "string", "required": True, "allowed": ["frac", "abs"]},
        "out_val": _with(_number_rule, required=True),
    },
    "pinlocations": {
        "pattern": {
            "type": "string",
            "allowed": ["spread", "perimeter", "spread_inputs_perimeter_outputs", "custom"],
            "default": "spread",
        },
    },
    "loc": {
        "side": {"type": "string", "required": True, "allowed": ["left", "right", "top", "bottom"]},
        "xoffset": _with(_int_rule, default=0),
        "yoffset": _with(_int_rule, default=0),
    },

    # layout
    "auto_layout": {
        "aspect_ratio": _with(_number_rule, default=1.0, positive=True),
    },
    "fixed_layout": {
        "name": _name_rule,
        "width": _with(_positive_int_rule, required=True),
        "height": _with(_positive_int_rule, required=True),
    },
    "grid_location": {
        "type": _with(_str_rule, required=True),
        "priority": _with(_int_rule, required=True),
        "x": _formula_rule,
        "y": _formula_rule,
        "startx": _formula_rule,
        "endx": _formula_rule,
        "repeatx": _formula_rule,
        "incrx": _formula_rule,
        "starty": _formula_rule,
        "endy": _formula_rule,
        "repeaty": _formula_rule,
        "incry": _formula_rule,
    },

    # device
    "sizing": {
        "R_minW_nmos": _number_rule,
        "R_minW_pmos": _number_rule,
    },
    "connection_block": {
        "input_switch_name": _with(_str_rule, required=True),
    },
    "area": {
        "grid_logic_tile_area": _number_rule,
    },
    "switch_block": {
        "type": {"type": "string", "required": True, "allowed": ["wilton", "subset", "universal", "custom"]},
        "fs": _with(_positive_int_rule),
    },
    "chan_width": {
        "distr": {"type": "string", "required": True, "allowed": ["uniform", "gaussian", "pulse", "delta"]},
        "peak": _with(_number_rule, required=True),
        "width": _number_rule,
        "xpeak": _number_rule,
        "dc": _number_rule,
    },

    # switches, segments, directs
    "switch": {
        "type": {"type": "string", "required": True,
                 "allowed": ["mux", "tristate", "pass_gate", "short", "buffer"]},
        "name": _with(_str_rule, required=True),
        "R": _number_rule,
        "Cin": _number_rule,
        "Cout": _number_rule,
        "Cinternal": _number_rule,
        "Tdel": _number_rule,
        "buf_size": _str_rule,
        "mux_trans_size": _number_rule,
        "power_buf_size": _number_rule,
    },
    "switch_tdel": {
        "num_inputs": _with(_positive_int_rule, required=True),
        "delay": _with(_number_rule, required=True),
    },
    "segment": {
        "name": _with(_str_rule, required=True),
        "length": {"type": "integer", "required": True,
                   "coerce": lambda v: -1 if str(v).strip() == "longline" else int(v)},
        "type": {"type": "string", "required": True, "allowed": ["bidir", "unidir"]},
        "freq": _with(_number_rule, default=1.0),
        "Rmetal": _with(_number_rule, default=0.0),
        "Cmetal": _with(_number_rule, default=0.0),
        "axis": {"type": "string", "allowed": ["x", "y", "xy"], "default": "xy"},
        "res_type": {"type": "string", "allowed": ["GENERAL", "GCLK"], "default": "GENERAL"},
    },
    "segment_pattern": {
        "type": {"type": "string", "allowed": ["pattern"], "default": "pattern"},
    },
    "named_ref": {
        "name": _with(_str_rule, required=True),
    },
    "direct": {
        "name": _with(_str_rule, required=True),
        "from_pin": _with(_str_rule, required=True),
        "to_pin": _with(_str_rule, required=True),
        "x_offset": _with(_int_rule, default=0),
        "y_offset": _with(_int_rule, default=0),
        "z_offset": _with(_int_rule, default=0),
        "switch_name": _str_rule,
        "from_side": {"type": "string", "allowed": ["left", "right", "top", "bottom"]},
        "to_side": {"type": "string", "allowed": ["left", "right", "top", "bottom"]},
    },

    # custom switch blocks
    "switchblock": {
        "name": _with(_str_rule, required=True),
        "type": {"type": "string", "required": True, "allowed": ["unidir", "bidir"]},
    },
    "switchblock_location": {
        "type": {"type": "string", "required": True,
                 "allowed": ["EVERYWHERE", "PERIMETER", "CORNER", "FRINGE", "CORE", "XY_SPECIFIED"]},
        "x": _int_rule,
        "y": _int_rule,
    },
    "switch_func": {
        "type": {"type": "string", "required": True,
                 "allowed": ["lt", "lr", "lb", "tr", "tb", "tl", "rb", "rl", "rt", "bl", "bt", "br"]},
        "formula": _with(_str_rule, required=True),
    },
    "wireconn": {
        "num_conns": _with(_str_rule, required=True),
        "from_type": _str_rule,
        "to_type": _str_rule,
        "from_switchpoint": {"type": "string", "regex": SWITCHPOINT_LIST_REGEX},
        "to_switchpoint": {"type": "string", "regex": SWITCHPOINT_LIST_REGEX},
        "from_order": {"type": "string", "allowed": ["shuffled", "fixed"], "default": "shuffled"},
        "to_order": {"type": "string", "allowed": ["shuffled", "fixed"], "default": "shuffled"},
        "switch_override": _str_rule,
    },
    "wireconn_point": {
        "type": _with(_str_rule, required=True),
        "switchpoint": {"type": "string", "required": True, "regex": SWITCHPOINT_LIST_REGEX},
    },

    # complex blocks
    "pb_type": {
        "name": _name_rule,
        "num_pb": _with(_positive_int_rule, default=1),
        "blif_model": _str_rule,
        "class": {"type": "string", "allowed": ["lut", "flipflop", "memory"]},
    },
    "pb_type_ref": {
        "ref": _with(_name_rule),
        "name": _with(_name_rule, required=False),
        "num_pb": _with(_positive_int_rule, default=1),
    },
    "pb_port": {
        "name": _name_rule,
        "num_pins": _with(_positive_int_rule, required=True),
        "equivalent": {"type": "string", "allowed": ["none", "full", "instance"], "default": "none"},
        "is_non_clock_global": _with(_bool_rule, default=False),
        "port_class": _str_rule,
    },
    "mode": {
        "name": _name_rule,
    },
    "interconnect_edge": {
        "name": _name_rule,
        "input": _with(_str_rule, required=True),
        "output": _with(_str_rule, required=True),
    },
    "pack_pattern": {
        "name": _with(_str_rule, required=True),
        "in_port": _with(_str_rule, required=True),
        "out_port": _with(_str_rule, required=True),
    },
    "delay_constant": {
        "max": _number_rule,
        "min": _number_rule,
        "in_port": _with(_str_rule, required=True),
        "out_port": _with(_str_rule, required=True),
    },
    "delay_matrix": {
        "type": {"type": "string", "required": True, "allowed": ["max", "min"]},
        "in_port": _with(_str_rule, required=True),
        "out_port": _with(_str_rule, required=True),
    },
    "t_setup_hold": {
        "value": _with(_number_rule, required=True),
        "port": _with(_str_rule, required=True),
        "clock": _with(_str_rule, required=True),
    },
    "t_clock_to_q": {
        "max": _number_rule,
        "min": _number_rule,
        "port": _with(_str_rule, required=True),
        "clock": _with(_str_rule, required=True),
    },
    "meta": {
        "name": _with(_str_rule, required=True),
    },
}


def create_validators() -> Dict[str, EnhancedValidator]:
    """Builds one validator per element schema, all tolerant of unknown attributes."""
    validators = {}
    for schema_name, schema in ELEMENT_SCHEMAS.items():
        validator = EnhancedValidator(schema)
        validator.allow_unknown = True
        validators[schema_name] = validator
    logger.debug(f"Created {len(validators)} element attribute validators.")
    return validators
