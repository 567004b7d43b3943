"""Cached construction of CUDA device functions from attrs compile settings.

A :class:`CUDAFactory` owns one :class:`CUDAFactoryConfig` of settings that
are baked into its compiled code. ``build()`` turns the settings into a
:class:`CUDADispatcherCache` of device functions and kernels; any change made
through :meth:`CUDAFactory.update_compile_settings` marks that cache stale so
the next :meth:`CUDAFactory.get_cached_output` rebuilds it.
"""

from hashlib import sha256
from abc import ABC, abstractmethod
from typing import Any, Set, Tuple

from attrs import define, field, fields_dict, Attribute, astuple

from cusurface._utils import (
    in_attr,
    is_attrs_class,
    precision_validator,
    precision_converter,
)
from cusurface.time_logger import default_timelogger


def _hash_tuple(values: Tuple) -> str:
    """SHA256 hexdigest of the string forms of ``values``."""
    combined = "|".join("None" if v is None else str(v) for v in values)
    return sha256(combined.encode("utf-8")).hexdigest()


def attribute_is_hashable(attribute: Attribute, value: Any) -> bool:
    """Exclude ``eq=False`` fields from the settings hash."""
    return attribute.eq is not False


@define
class CUDAFactoryConfig:
    """Base class for compile-critical settings.

    Subclasses add fields with ``@attrs.define``. Fields marked ``eq=False``
    are bookkeeping, not settings: they are excluded from the hash and
    cannot be updated.

    .. warning::

        Change fields only through :meth:`update`; direct assignment skips
        validation and leaves the hash stale.
    """

    precision: type = field(
        validator=precision_validator, converter=precision_converter
    )
    _values_hash: str = field(default="", init=False, repr=False, eq=False)

    def __attrs_post_init__(self):
        self._values_hash = _hash_tuple(self.values_tuple)

    def update(
        self, updates_dict: dict = None, **kwargs
    ) -> Tuple[Set[str], Set[str]]:
        """Apply new setting values.

        Values pass through each field's converter and validator, so an
        update is held to the same rules as construction.

        Returns
        -------
        tuple[set[str], set[str]]
            Names that matched a setting, and names whose value changed.
        """
        updates = dict(updates_dict or {}, **kwargs)
        settings = fields_dict(type(self))
        recognized = set()
        changed = set()

        for key, value in updates.items():
            fld = settings.get(key)
            if fld is None or fld.eq is False:
                continue
            recognized.add(key)
            if fld.converter is not None:
                value = fld.converter(value)
            if fld.validator is not None:
                fld.validator(self, fld, value)
            if getattr(self, key) != value:
                object.__setattr__(self, key, value)
                changed.add(key)

        if changed:
            self._values_hash = _hash_tuple(self.values_tuple)
        return recognized, changed

    @property
    def values_tuple(self) -> Tuple:
        """Values of every setting, in field order."""
        return astuple(self, recurse=True, filter=attribute_is_hashable)

    @property
    def values_hash(self) -> str:
        """SHA256 hexdigest of ``values_tuple``."""
        return self._values_hash


@define
class CUDADispatcherCache:
    """Base class for the compiled outputs of a CUDAFactory."""

    pass


class CUDAFactory(ABC):
    """Builds and caches CUDA device functions for one set of settings.

    Subclasses implement :meth:`build`.

    Notes
    -----
    Fetch cached outputs at the point of use. A device function held across
    an ``update_compile_settings`` call keeps the old behaviour.
    """

    def __init__(self):
        self._compile_settings = None
        self._cache_valid = True
        self._cache = None

    @abstractmethod
    def build(self):
        """Build and return a CUDADispatcherCache of compiled outputs."""
        return None

    def setup_compile_settings(self, compile_settings):
        """Attach the settings container and mark the cache stale.

        Raises
        ------
        TypeError
            If ``compile_settings`` is not an attrs instance.
        """
        if not is_attrs_class(type(compile_settings)):
            raise TypeError(
                "Compile settings must be an attrs class instance."
            )
        self._compile_settings = compile_settings
        self._cache_valid = False

    @property
    def cache_valid(self):
        """bool: ``True`` if cached outputs are up to date."""
        return self._cache_valid

    @property
    def compile_settings(self):
        return self._compile_settings

    def update_compile_settings(
        self, updates_dict=None, silent=False, **kwargs
    ) -> Set[str]:
        """Update compile settings, invalidating the cache on any change.

        Parameters
        ----------
        updates_dict : dict, optional
            Mapping of setting names to new values.
        silent : bool, default=False
            Suppress errors for unrecognised parameters.
        **kwargs
            Additional settings to update.

        Returns
        -------
        set[str]
            Names of settings that were recognised.

        Raises
        ------
        ValueError
            If compile settings have not been set up.
        KeyError
            If an unrecognised parameter is supplied and ``silent`` is
            ``False``.
        """
        updates = dict(updates_dict or {}, **kwargs)
        if not updates:
            return set()
        if self._compile_settings is None:
            raise ValueError(
                "Compile settings must be set up using "
                "self.setup_compile_settings before updating."
            )
        recognized, changed = self._compile_settings.update(updates)

        unrecognised = set(updates) - recognized
        if unrecognised and not silent:
            invalid = ", ".join(sorted(unrecognised))
            raise KeyError(
                f"'{invalid}' is not a valid compile setting for this "
                "object, and so was not updated.",
            )
        if changed:
            self._cache_valid = False
        return recognized

    def _build(self):
        default_timelogger.start_event(
            "accessor_build", factory=type(self).__name__
        )
        try:
            build_result = self.build()
        finally:
            default_timelogger.stop_event("accessor_build")

        if not isinstance(build_result, CUDADispatcherCache):
            raise TypeError(
                "build() must return an attrs class (CUDADispatcherCache "
                "subclass)"
            )
        self._cache = build_result
        self._cache_valid = True

    def get_cached_output(self, output_name):
        """Return a named compiled output, rebuilding if settings changed.

        Raises
        ------
        KeyError
            If ``output_name`` is not present in the cache.
        """
        if not self._cache_valid:
            self._build()
        if not in_attr(output_name, self._cache):
            raise KeyError(
                f"Output '{output_name}' not found in cached outputs."
            )
        return getattr(self._cache, output_name)

    @property
    def config_hash(self):
        """Hash of the current compile settings."""
        return self._compile_settings.values_hash
