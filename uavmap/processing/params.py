# -*- coding: utf-8 -*-
"""
Tunable Parameter Annotations - Declarative constraints via typing.Annotated.

Provides the constraint markers ``Range``, ``Options`` and ``Desc`` used
inside ``typing.Annotated`` class-body annotations of ``ImageProcessor``
subclasses, and ``ParamSpec``, the resolved description of one tunable
parameter. ``collect_param_specs`` is called by
``ImageProcessor.__init_subclass__``.

Usage
-----
::

    from typing import Annotated
    from uavmap.processing.params import Range, Options, Desc

    class MyDepthFilter(ImageTransform):
        sigma: Annotated[float, Range(min=0.1, max=50.0), Desc('Sigma')] = 2.0
        border: Annotated[str, Options('reflect', 'nearest')] = 'reflect'

Author
------
Steven Siebert

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-04

Modified
--------
2026-10-04
"""

# Standard library
from dataclasses import dataclass
from typing import Annotated, Any, Optional, Tuple, Union, get_origin, get_type_hints

# uavmap internal
from uavmap.exceptions import ValidationError

Number = Union[int, float]


class ParamMeta:
    """Marker base class; any ``Annotated`` field carrying one is tunable."""


class Range(ParamMeta):
    """Inclusive numeric bounds. Either side may be None (unbounded)."""

    __slots__ = ('min', 'max')

    def __init__(self, min: Optional[Number] = None, max: Optional[Number] = None) -> None:
        self.min = min
        self.max = max

    def __repr__(self) -> str:
        return f"Range(min={self.min!r}, max={self.max!r})"


class Options(ParamMeta):
    """Discrete set of allowed values."""

    __slots__ = ('choices',)

    def __init__(self, *choices: Any) -> None:
        if not choices:
            raise ValueError("Options requires at least one choice")
        self.choices = choices

    def __repr__(self) -> str:
        return f"Options{self.choices!r}"


class Desc(ParamMeta):
    """Human-readable description of a parameter."""

    __slots__ = ('text',)

    def __init__(self, text: str) -> None:
        self.text = text

    def __repr__(self) -> str:
        return f"Desc({self.text!r})"


@dataclass(frozen=True)
class ParamSpec:
    """Resolved specification of a single tunable parameter.

    Attributes
    ----------
    name : str
        Attribute / keyword name.
    param_type : type
        Expected type. ``int`` values are accepted for ``float``.
    default : Any
        Class-level default value.
    description : str
    min_value, max_value : int, float or None
        Inclusive bounds from ``Range``.
    choices : tuple or None
        Allowed values from ``Options``.
    """

    name: str
    param_type: type
    default: Any
    description: str = ''
    min_value: Optional[Number] = None
    max_value: Optional[Number] = None
    choices: Optional[Tuple[Any, ...]] = None

    def validate(self, value: Any) -> None:
        """Check ``value`` against type, range and choices.

        Raises
        ------
        ValidationError
            If the value violates any constraint.
        """
        expected = (int, float) if self.param_type is float else self.param_type
        if self.param_type is not object and (
            not isinstance(value, expected)
            # bool is an int subclass; only accept it for bool params
            or (isinstance(value, bool) and self.param_type is not bool)
        ):
            raise ValidationError(
                f"Parameter '{self.name}' must be {self.param_type.__name__}, "
                f"got {type(value).__name__}"
            )
        if self.min_value is not None and value < self.min_value:
            raise ValidationError(
                f"Parameter '{self.name}' value {value!r} is below minimum "
                f"{self.min_value!r}"
            )
        if self.max_value is not None and value > self.max_value:
            raise ValidationError(
                f"Parameter '{self.name}' value {value!r} is above maximum "
                f"{self.max_value!r}"
            )
        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Parameter '{self.name}' value {value!r} is not one of "
                f"{self.choices!r}"
            )


def collect_param_specs(cls: type) -> Tuple[ParamSpec, ...]:
    """Collect ``ParamSpec`` entries from the ``Annotated`` hints of ``cls``.

    Parent-class parameters come first, each class in declaration order.

    Raises
    ------
    TypeError
        If a field declares both ``Range`` and ``Options``.
    """
    hints = get_type_hints(cls, include_extras=True)

    names = []
    for klass in reversed(cls.__mro__):
        for name in getattr(klass, '__annotations__', {}):
            if name in hints and name not in names:
                names.append(name)

    specs = []
    for name in names:
        hint = hints[name]
        if get_origin(hint) is not Annotated:
            continue
        metas = [m for m in hint.__metadata__ if isinstance(m, ParamMeta)]
        if not metas:
            continue
        rng = next((m for m in metas if isinstance(m, Range)), None)
        opts = next((m for m in metas if isinstance(m, Options)), None)
        desc = next((m for m in metas if isinstance(m, Desc)), None)
        if rng is not None and opts is not None:
            raise TypeError(
                f"Parameter '{name}' on {cls.__qualname__}: Range and "
                f"Options are mutually exclusive"
            )
        specs.append(ParamSpec(
            name=name,
            param_type=hint.__args__[0],
            default=getattr(cls, name, None),
            description=desc.text if desc else '',
            min_value=rng.min if rng else None,
            max_value=rng.max if rng else None,
            choices=opts.choices if opts else None,
        ))
    return tuple(specs)
