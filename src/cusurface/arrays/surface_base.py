"""Common base for surface-memory 3D arrays.

:class:`SurfaceArray3DBase` implements everything the layered and volumetric
surface arrays share: allocation through the variant traits, shallow copy and
assignment over a shared resource handle, ``empty_copy``, deep transfers to
and from host buffers, and per-instance boundary mode. Subclasses supply only
the read and write factories for their resource layout.

Storage is emulated: the resource is a linear Numba device array, not a CUDA
array bound to a surface object, and the accessors index it directly instead
of issuing surface load and store instructions. The accessor signatures and
boundary behaviour follow the hardware surface intrinsics.

Copy and assignment between arrays are shallow: both arrays see the same
device contents afterwards. Content duplication is always explicit, through
``empty_copy`` followed by ``copy_from``, ``copy.deepcopy``, or a host round
trip.

Kernels receive the bound resource, :attr:`~SurfaceArray3DBase.surface_object`,
and call the array's compiled accessors on it::

    arr = Surface3D(64, 64, 64)
    set_element = arr.set

    @cuda.jit
    def clear(surface):
        x, y, z = cuda.grid(3)
        set_element(surface, x, y, z, 0.0)

    arr.launch(clear, arr.surface_object)

The accessors are built for one boundary mode, element type and geometry, and
are rebuilt only for the instance whose boundary mode changes.
"""

from abc import abstractmethod
from typing import Any, Callable, Dict, Tuple, Union
from warnings import warn
import weakref

import attrs
from attrs import define, field
from attrs.validators import instance_of as attrsval_instance_of
from numba import cuda
import numpy as np

from cusurface.CUDAFactory import (
    CUDADispatcherCache,
    CUDAFactory,
    CUDAFactoryConfig,
)
from cusurface._utils import extent_validator
from cusurface.arrays.boundary import BoundaryMode, boundary_mode_converter
from cusurface.arrays.geometry import BLOCK_DIM, Array3DBase
from cusurface.arrays.surface_ops import accessor_compile_kwargs
from cusurface.arrays.traits import VariantTraits, variant_traits
from cusurface.cuda_simsafe import is_cuda_array, is_devfunc
from cusurface.errors import SizeMismatchError
from cusurface.memory.surface_handle import SharedSurfaceObject
from cusurface.memory.transfers import (
    from_surface,
    surface_to_surface,
    to_surface,
)
from cusurface.time_logger import default_timelogger

#: Kernels kept per array by ``apply_op``; the oldest is dropped beyond this.
MAX_OP_KERNELS = 16


@define
class SurfaceAccessConfig(CUDAFactoryConfig):
    """Compile-critical settings for a surface array's accessors.

    Attributes
    ----------
    is_layered
        Address the resource as a stack of 2D layers.
    boundary_mode
        Policy for out-of-range coordinates.
    width, height, depth
        Extents baked into the boundary checks.
    """

    is_layered: bool = field(validator=attrsval_instance_of(bool))
    boundary_mode: BoundaryMode = field(converter=boundary_mode_converter)
    width: int = field(validator=extent_validator)
    height: int = field(validator=extent_validator)
    depth: int = field(validator=extent_validator)


@define
class SurfaceAccessorCache(CUDADispatcherCache):
    """Compiled accessors and helper kernels of one surface array."""

    get: Callable = field(eq=False)
    set: Callable = field(eq=False)
    fill_kernel: Callable = field(eq=False)


class SurfaceArray3DBase(Array3DBase, CUDAFactory):
    """Base class for surface-memory 3D arrays.

    Parameters
    ----------
    width, height, depth
        Number of elements along x, y and z.
    dtype
        Element type; must be a surface format.
    block_dim
        Default block size for kernels over this array; the default grid is
        computed from it.
    stream
        Stream for this array's host operations, ``0`` for the default.
    boundary_mode
        Policy for accesses outside the extents; a :class:`BoundaryMode` or
        its name.

    Raises
    ------
    InvalidGeometryError
        If an extent or the block size is invalid.
    AllocationError
        If the resource cannot be allocated.
    """

    def __init__(
        self,
        width: int,
        height: int,
        depth: int,
        dtype: Any = np.float32,
        block_dim: Tuple[int, int, int] = BLOCK_DIM,
        stream: Any = 0,
        boundary_mode: Union[BoundaryMode, str] = BoundaryMode.ZERO,
    ) -> None:
        Array3DBase.__init__(self, width, height, depth, block_dim, stream)
        CUDAFactory.__init__(self)
        traits = variant_traits(type(self), dtype)
        config = SurfaceAccessConfig(
            precision=traits.scalar,
            is_layered=traits.is_layered,
            boundary_mode=boundary_mode,
            width=self.width,
            height=self.height,
            depth=self.depth,
        )
        self._traits = traits
        self._op_kernels: Dict[Any, Callable] = {}
        self._surface = None
        self._finalizer = None
        self._attach(
            SharedSurfaceObject.acquire(
                self.width,
                self.height,
                self.depth,
                traits.scalar,
                traits.is_layered,
                stream=stream,
            )
        )
        self.setup_compile_settings(config)

    # ------------------------------------------------------------------ #
    # variant hooks

    @staticmethod
    @abstractmethod
    def read_factory(precision, width, height, depth, boundary_mode):
        """Return ``read(surface, x_bytes, y, z)`` for this layout."""

    @staticmethod
    @abstractmethod
    def write_factory(precision, width, height, depth, boundary_mode):
        """Return ``write(value, surface, x_bytes, y, z)`` for this layout."""

    def build_get(self, config: SurfaceAccessConfig) -> Callable:
        """Return the device function ``get(surface, x, y, z)``."""
        itemsize = config.precision(0).itemsize
        read = self.read_factory(
            config.precision,
            config.width,
            config.height,
            config.depth,
            config.boundary_mode,
        )

        # no cover: start
        @cuda.jit(
            device=True,
            inline=True,
            **accessor_compile_kwargs(config.boundary_mode),
        )
        def get(surface, x, y, z):
            return read(surface, itemsize * x, y, z)
        # no cover: end

        return get

    def build_set(self, config: SurfaceAccessConfig) -> Callable:
        """Return the device function ``set(surface, x, y, z, v)``."""
        itemsize = config.precision(0).itemsize
        write = self.write_factory(
            config.precision,
            config.width,
            config.height,
            config.depth,
            config.boundary_mode,
        )

        # no cover: start
        @cuda.jit(
            device=True,
            inline=True,
            **accessor_compile_kwargs(config.boundary_mode),
        )
        def set_element(surface, x, y, z, v):
            write(v, surface, itemsize * x, y, z)
        # no cover: end

        return set_element

    def build(self) -> SurfaceAccessorCache:
        """Compile the accessors and fill kernel for the current settings."""
        config = self.compile_settings
        get = self.build_get(config)
        set_element = self.build_set(config)
        width = config.width
        height = config.height
        depth = config.depth

        # no cover: start
        @cuda.jit(**accessor_compile_kwargs(config.boundary_mode))
        def fill_kernel(surface, value):
            x, y, z = cuda.grid(3)
            if x < width and y < height and z < depth:
                set_element(surface, x, y, z, value)
        # no cover: end

        self._op_kernels.clear()
        return SurfaceAccessorCache(
            get=get, set=set_element, fill_kernel=fill_kernel
        )

    # ------------------------------------------------------------------ #
    # ownership

    def _attach(self, surface: SharedSurfaceObject) -> None:
        self._surface = surface
        self._finalizer = weakref.finalize(self, surface.release)

    def _detach(self) -> None:
        if self._finalizer is not None and self._finalizer.alive:
            self._finalizer()
        self._finalizer = None
        self._surface = None

    def _require_surface(self) -> SharedSurfaceObject:
        if self._surface is None:
            raise RuntimeError("This surface array has been freed.")
        return self._surface

    def free(self) -> None:
        """Drop this array's reference to its resource now.

        The resource itself is released once no other array shares it.
        Using the array afterwards raises ``RuntimeError``.
        """
        if self._surface is None:
            warn("free() called on a surface array that was already freed.")
            return
        self._detach()

    # ------------------------------------------------------------------ #
    # shallow copy and assignment

    def __copy__(self) -> "SurfaceArray3DBase":
        cls = type(self)
        clone = cls.__new__(cls)
        CUDAFactory.__init__(clone)
        clone._assign_geometry(self)
        clone._traits = self._traits
        clone._op_kernels = {}
        clone._surface = None
        clone._finalizer = None
        clone._attach(self._require_surface().clone())
        clone.setup_compile_settings(attrs.evolve(self.compile_settings))
        # Accessors depend only on compile settings, so reuse them.
        clone._cache = self._cache
        clone._cache_valid = self._cache_valid
        return clone

    def shallow_copy(self) -> "SurfaceArray3DBase":
        """Return a new array sharing this array's resource."""
        return self.__copy__()

    def assign(self, other: Any) -> "SurfaceArray3DBase":
        """Assign from another array (shallow) or a host buffer (deep).

        Parameters
        ----------
        other
            A surface array of the same variant and dtype, whose resource
            this array will share from now on, or a host buffer whose
            contents are copied into the current resource.

        Returns
        -------
        SurfaceArray3DBase
            ``self``.

        Raises
        ------
        TypeError
            If ``other`` is a surface array of another variant or dtype.
        SizeMismatchError
            If a host buffer does not hold exactly ``size`` elements.
        """
        if isinstance(other, SurfaceArray3DBase):
            return self._share(other)
        return self.copy_from_host(other)

    def _share(self, other: "SurfaceArray3DBase") -> "SurfaceArray3DBase":
        if other is self:
            return self
        if type(other) is not type(self) or other.dtype != self.dtype:
            raise TypeError(
                f"Cannot assign a {type(other).__name__} of "
                f"{np.dtype(other.dtype).name} to a {type(self).__name__} "
                f"of {np.dtype(self.dtype).name}."
            )
        # Clone before detaching in case both already share the resource.
        shared = other._require_surface().clone()
        self._detach()
        self._assign_geometry(other)
        self._attach(shared)
        self.update_compile_settings(
            boundary_mode=other.boundary_mode,
            width=other.width,
            height=other.height,
            depth=other.depth,
        )
        return self

    def empty_copy(self) -> "SurfaceArray3DBase":
        """Return an independent, zero-filled array of identical geometry,
        boundary mode, tiling and stream."""
        return type(self)(
            self.width,
            self.height,
            self.depth,
            dtype=self.dtype,
            block_dim=self.block_dim,
            stream=self.stream,
            boundary_mode=self.boundary_mode,
        )

    def __deepcopy__(self, memo) -> "SurfaceArray3DBase":
        duplicate = self.empty_copy()
        duplicate.copy_from(self)
        memo[id(self)] = duplicate
        return duplicate

    # ------------------------------------------------------------------ #
    # deep transfers

    def copy_from_host(self, host_array: Any) -> "SurfaceArray3DBase":
        """Copy a host buffer into the resource.

        The buffer must hold exactly ``width * height * depth`` elements in
        row-major order with depth slowest. Elements are converted to the
        array's dtype. Returns once the copy has completed on the array's
        stream.

        Raises
        ------
        SizeMismatchError
            If the buffer length does not match the geometry.
        TypeError
            If given a device array; use :meth:`copy_from` between
            surfaces.
        """
        surface = self._require_surface()
        if is_cuda_array(host_array):
            raise TypeError(
                "copy_from_host needs a host buffer, got a device array."
            )
        host_array = np.asarray(host_array)
        if host_array.size != self.size:
            raise SizeMismatchError(self.size, host_array.size)
        staged = np.ascontiguousarray(
            host_array, dtype=self.dtype
        ).reshape(surface.shape)

        default_timelogger.start_event(
            "host_to_surface", nbytes=surface.nbytes
        )
        try:
            to_surface(staged, surface.dev_array, self.stream)
        finally:
            default_timelogger.stop_event("host_to_surface")
        return self

    def copy_to(self, host_array: np.ndarray) -> None:
        """Copy the whole resource into a caller-owned host buffer.

        Parameters
        ----------
        host_array
            Writable C-contiguous ndarray of the array's dtype holding
            exactly ``size`` elements, in any shape.

        Raises
        ------
        SizeMismatchError
            If the buffer length does not match the geometry.
        TypeError
            If the buffer is not a writable contiguous ndarray of the
            array's dtype.
        """
        surface = self._require_surface()
        if not isinstance(host_array, np.ndarray):
            raise TypeError(
                f"copy_to needs a numpy ndarray, got "
                f"{type(host_array).__name__}."
            )
        if host_array.size != self.size:
            raise SizeMismatchError(self.size, host_array.size)
        if host_array.dtype != np.dtype(self.dtype):
            raise TypeError(
                f"Host buffer dtype {host_array.dtype} does not match "
                f"surface dtype {np.dtype(self.dtype)}."
            )
        if not host_array.flags.c_contiguous or not host_array.flags.writeable:
            raise TypeError("Host buffer must be writable and C-contiguous.")

        default_timelogger.start_event(
            "surface_to_host", nbytes=surface.nbytes
        )
        try:
            from_surface(
                surface.dev_array,
                host_array.reshape(surface.shape),
                self.stream,
            )
        finally:
            default_timelogger.stop_event("surface_to_host")

    def copy_to_host(self) -> np.ndarray:
        """Return the contents as a new ``(depth, height, width)`` array."""
        host_array = np.empty(self.shape, dtype=self.dtype)
        self.copy_to(host_array)
        return host_array

    def copy_from(self, other: "SurfaceArray3DBase") -> "SurfaceArray3DBase":
        """Copy the contents of another surface array into this one.

        Raises
        ------
        TypeError
            If ``other`` has a different layout or dtype.
        SizeMismatchError
            If ``other`` has a different shape, even with the same number
            of elements.
        """
        if not isinstance(other, SurfaceArray3DBase):
            raise TypeError(
                f"copy_from needs a surface array, got "
                f"{type(other).__name__}."
            )
        if other.is_layered != self.is_layered or other.dtype != self.dtype:
            raise TypeError(
                "copy_from needs a surface array with the same layout "
                "and dtype."
            )
        if other.shape != self.shape:
            raise SizeMismatchError(
                self.size,
                other.size,
                f"copy_from needs a source of shape {self.shape}, got "
                f"{other.shape}.",
            )
        src = other._require_surface()
        dst = self._require_surface()
        if src is not dst:
            surface_to_surface(src.dev_array, dst.dev_array, self.stream)
        return self

    # ------------------------------------------------------------------ #
    # kernel-side access

    @property
    def surface_object(self) -> Any:
        """The bound resource to pass into kernels as a shallow argument."""
        return self._require_surface().get_cuda_api_object()

    @property
    def get(self) -> Callable:
        """Device function ``get(surface, x, y, z) -> scalar``."""
        return self.get_cached_output("get")

    @property
    def set(self) -> Callable:
        """Device function ``set(surface, x, y, z, v)``."""
        return self.get_cached_output("set")

    @property
    def kernel_compile_kwargs(self) -> Dict[str, Any]:
        """Jit options for kernels calling this array's accessors."""
        return accessor_compile_kwargs(self.boundary_mode)

    def fill(self, value: Any) -> None:
        """Set every element to ``value`` with a kernel on this stream."""
        fill_kernel = self.get_cached_output("fill_kernel")
        self.launch(fill_kernel, self.surface_object, self.dtype(value))

    def apply_op(self, op: Callable) -> None:
        """Set every element ``(x, y, z)`` to ``op(x, y, z)``.

        The kernel built for each ``op`` is reused on later calls, up to
        ``MAX_OP_KERNELS`` ops per array.

        Parameters
        ----------
        op
            CUDA device function of the three coordinates.

        Raises
        ------
        TypeError
            If ``op`` is not a CUDA device function.
        """
        if not is_devfunc(op):
            raise TypeError("apply_op needs a CUDA device function.")
        set_element = self.set
        key = (op, self.config_hash)
        kernel = self._op_kernels.get(key)
        if kernel is None:
            width, height, depth = self.width, self.height, self.depth

            # no cover: start
            @cuda.jit(**self.kernel_compile_kwargs)
            def kernel(surface):
                x, y, z = cuda.grid(3)
                if x < width and y < height and z < depth:
                    set_element(surface, x, y, z, op(x, y, z))
            # no cover: end

            if len(self._op_kernels) >= MAX_OP_KERNELS:
                self._op_kernels.pop(next(iter(self._op_kernels)))
            self._op_kernels[key] = kernel
        self.launch(kernel, self.surface_object)

    # ------------------------------------------------------------------ #
    # queries

    @property
    def traits(self) -> VariantTraits:
        return self._traits

    @property
    def dtype(self) -> type:
        """Numpy scalar type of the elements."""
        return self._traits.scalar

    @property
    def is_layered(self) -> bool:
        return self._traits.is_layered

    @property
    def nbytes(self) -> int:
        return self.size * self._traits.itemsize

    @property
    def boundary_mode(self) -> BoundaryMode:
        """Boundary mode used by this instance's accessors."""
        return self.compile_settings.boundary_mode

    def get_boundary_mode(self) -> BoundaryMode:
        return self.boundary_mode

    def set_boundary_mode(self, boundary_mode: Union[BoundaryMode, str]) -> None:
        """Change this instance's boundary mode.

        Other arrays sharing the resource keep their own mode.
        """
        self.update_compile_settings(boundary_mode=boundary_mode)

    @property
    def freed(self) -> bool:
        """Whether this instance has dropped its resource reference."""
        return self._surface is None

    @property
    def resource(self) -> SharedSurfaceObject:
        """The shared resource handle."""
        return self._require_surface()

    @property
    def refcount(self) -> int:
        """Number of arrays sharing this array's resource."""
        return self._require_surface().refcount

    def shares_resource_with(self, other: "SurfaceArray3DBase") -> bool:
        """Whether ``other`` references the same resource."""
        return (
            self._surface is not None
            and self._surface is getattr(other, "_surface", None)
        )

    def __repr__(self) -> str:
        state = "freed" if self._surface is None else (
            f"refcount={self._surface.refcount}"
        )
        return (
            f"{type(self).__name__}(width={self.width}, "
            f"height={self.height}, depth={self.depth}, "
            f"dtype={np.dtype(self.dtype).name}, "
            f"boundary_mode={self.boundary_mode.name}, {state})"
        )
