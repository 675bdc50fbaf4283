"""Document tree of folders, groups and containers.

A document is an ordered forest:

- :class:`Folder` nodes hold other folders and groups (``children``).
- :class:`Group` nodes hold containers (``containers``) and carry the noise
  parameters their containers inherit.
- :class:`Container` nodes are the leaves that actually receive events. A
  container with ``override_parent`` set uses its own noise parameters.

Nodes are addressed two ways. A :data:`Path` is the tuple of positional
indices from the root, and is how a node is handed to generation callbacks.
A ``node_id`` is a stable integer assigned at creation that survives
insertions, removals and reordering; it is how a node is remembered between
the moment it is seen and the moment it is acted on.
"""

import dataclasses
import itertools
import logging
import typing

import ambiance.noise


logger = logging.getLogger(__name__)

Path = typing.Tuple[int, ...]

T = typing.TypeVar("T")

_node_ids = itertools.count(1)


def _next_node_id () -> int:
	return next(_node_ids)


@dataclasses.dataclass(eq=False)
class Node:

	"""
	Attributes shared by every document node.

	Attributes:
		name: Display name.
		needs_regeneration: Set by parameter edits, cleared by the
			regeneration coordinator once the node has been regenerated.
		node_id: Stable identifier, unique for the lifetime of the process.
	"""

	name: str
	needs_regeneration: bool = False
	node_id: int = dataclasses.field(default_factory=_next_node_id)

	def mark_dirty (self) -> None:

		"""Flag the node's generated content as stale."""

		self.needs_regeneration = True


@dataclasses.dataclass(eq=False)
class Item:

	"""
	A sound source a container can place.

	Attributes:
		name: Source name (usually a file name).
		length: Source length in seconds.
		areas: Optional ``(start, end)`` regions within the source. When
			present, each placement uses one region instead of the whole item.
	"""

	name: str
	length: float = 0.0
	areas: typing.List[typing.Tuple[float, float]] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(eq=False)
class Container (Node):

	"""A leaf of generation: receives placements on its own track."""

	noise: ambiance.noise.NoiseParameters = dataclasses.field(default_factory=ambiance.noise.NoiseParameters)
	override_parent: bool = False
	items: typing.List[Item] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(eq=False)
class Group (Node):

	"""A generation unit that owns containers and the parameters they inherit."""

	noise: ambiance.noise.NoiseParameters = dataclasses.field(default_factory=ambiance.noise.NoiseParameters)
	containers: typing.List[Container] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(eq=False)
class Folder (Node):

	"""An organisational node holding folders and groups."""

	children: typing.List[typing.Union["Folder", Group]] = dataclasses.field(default_factory=list)


def _children (node: Node) -> typing.Optional[typing.List[typing.Any]]:

	"""The child collection a path step below ``node`` indexes into."""

	if isinstance(node, Folder):
		return node.children

	if isinstance(node, Group):
		return node.containers

	return None


def resolve_path (roots: typing.Sequence[Node], path: typing.Sequence[int]) -> typing.Optional[Node]:

	"""Follow ``path`` from ``roots`` and return the node it names, or ``None``.

	An empty path, an out-of-range index or a step below a container all
	resolve to ``None``.
	"""

	if not path:
		return None

	collection: typing.Optional[typing.Sequence[Node]] = roots
	node: typing.Optional[Node] = None

	for index in path:

		if collection is None or not 0 <= index < len(collection):
			return None

		node = collection[index]
		collection = _children(node)

	return node


def effective_parameters (group: Group, container: Container) -> ambiance.noise.NoiseParameters:

	"""Return the noise parameters a container generates with."""

	if container.override_parent:
		return container.noise

	return group.noise


@dataclasses.dataclass(frozen=True)
class Uniform (typing.Generic[T]):

	"""Every node in a multi-selection shares ``value``."""

	value: T


@dataclasses.dataclass(frozen=True)
class Mixed:

	"""Nodes in a multi-selection disagree."""


def common_value (nodes: typing.Iterable[Node], getter: typing.Callable[[typing.Any], T]) -> typing.Optional[typing.Union[Uniform[T], Mixed]]:

	"""Summarise one attribute across a multi-selection.

	Returns :class:`Uniform` when all nodes agree, :class:`Mixed` when they
	don't, and ``None`` for an empty selection.

	Example:
		```python
		density = ambiance.hierarchy.common_value(selected, lambda node: node.noise.density)
		if isinstance(density, ambiance.hierarchy.Mixed):
			...
		```
	"""

	result: typing.Optional[Uniform[T]] = None

	for node in nodes:

		value = getter(node)

		if result is None:
			result = Uniform(value)
		elif result.value != value:
			return Mixed()

	return result


_NOISE_FIELDS = frozenset(field.name for field in dataclasses.fields(ambiance.noise.NoiseParameters))


class Hierarchy:

	"""
	An addressable document tree.

	Lookups are by path (:meth:`resolve`) or by stable id (:meth:`find`,
	:meth:`path_of`). Traversals yield immutable path tuples in document
	order.
	"""

	def __init__ (self, roots: typing.Optional[typing.Iterable[typing.Union[Folder, Group]]] = None) -> None:

		self.roots: typing.List[typing.Union[Folder, Group]] = list(roots or [])

	def resolve (self, path: typing.Sequence[int]) -> typing.Optional[Node]:

		"""Return the node at ``path``, or ``None`` if nothing is there."""

		return resolve_path(self.roots, path)

	def walk (self) -> typing.Iterator[typing.Tuple[Path, Node]]:

		"""Yield every ``(path, node)`` pair in document order, parents before children."""

		def _walk (nodes: typing.Sequence[Node], prefix: Path) -> typing.Iterator[typing.Tuple[Path, Node]]:

			for index, node in enumerate(nodes):

				path = prefix + (index,)
				yield path, node

				children = _children(node)

				if children:
					yield from _walk(children, path)

		return _walk(self.roots, ())

	def groups (self) -> typing.Iterator[typing.Tuple[Path, Group]]:

		"""Yield every group reachable through folders, in document order."""

		for path, node in self.walk():
			if isinstance(node, Group):
				yield path, node

	def find (self, node_id: int) -> typing.Optional[Node]:

		"""Return the node with ``node_id``, or ``None`` if it is no longer in the tree."""

		for _, node in self.walk():
			if node.node_id == node_id:
				return node

		return None

	def path_of (self, node_id: int) -> typing.Optional[Path]:

		"""Return the current path of the node with ``node_id``, or ``None``."""

		for path, node in self.walk():
			if node.node_id == node_id:
				return path

		return None

	def parent_of (self, path: typing.Sequence[int]) -> typing.Optional[Node]:

		"""Return the parent of the node at ``path`` (``None`` at root level)."""

		if len(path) <= 1:
			return None

		return self.resolve(tuple(path[:-1]))

	def dirty_nodes (self) -> typing.List[typing.Tuple[Path, Node]]:

		"""Return every node whose ``needs_regeneration`` flag is set."""

		return [(path, node) for path, node in self.walk() if node.needs_regeneration]

	def _collection_at (self, parent_path: Path, node: Node) -> typing.List[typing.Any]:

		"""Return the list ``node`` would be inserted into under ``parent_path``."""

		if not parent_path:
			if isinstance(node, Container):
				raise ValueError("Containers must live inside a group")
			return self.roots

		parent = self.resolve(parent_path)

		if isinstance(parent, Folder):
			if isinstance(node, Container):
				raise ValueError("Containers must live inside a group, not a folder")
			return parent.children

		if isinstance(parent, Group):
			if not isinstance(node, Container):
				raise ValueError("Groups can only hold containers")
			return parent.containers

		raise ValueError(f"No folder or group at {parent_path}")

	def insert (self, path: typing.Sequence[int], node: typing.Union[Folder, Group, Container]) -> Path:

		"""Insert ``node`` so that it ends up at ``path``, shifting later siblings.

		An index past the end appends. Returns the node's actual path.
		"""

		if not path:
			raise ValueError("Cannot insert at an empty path")

		parent_path = tuple(path[:-1])
		collection = self._collection_at(parent_path, node)
		index = max(0, min(path[-1], len(collection)))
		collection.insert(index, node)

		return parent_path + (index,)

	def append (self, parent_path: typing.Sequence[int], node: typing.Union[Folder, Group, Container]) -> Path:

		"""Append ``node`` as the last child of ``parent_path`` (``()`` for the root)."""

		parent_path = tuple(parent_path)
		collection = self._collection_at(parent_path, node)
		collection.append(node)

		return parent_path + (len(collection) - 1,)

	def remove (self, path: typing.Sequence[int]) -> Node:

		"""Remove and return the node at ``path``. Its subtree leaves with it."""

		node = self.resolve(path)

		if node is None:
			raise ValueError(f"No node at {tuple(path)}")

		parent = self.parent_of(path)
		collection = self.roots if parent is None else _children(parent)
		assert collection is not None
		del collection[path[-1]]

		logger.debug(f"Removed {node.name!r} from {tuple(path)}")

		return node

	def move (self, source: typing.Sequence[int], destination: typing.Sequence[int]) -> Path:

		"""Move the node at ``source`` to ``destination``.

		``destination`` is interpreted after the node has been removed. If the
		insertion is invalid the node is restored to ``source`` and the error
		is re-raised.
		"""

		node = self.remove(source)

		try:
			return self.insert(destination, node)  # type: ignore[arg-type]
		except ValueError:
			self.insert(source, node)  # type: ignore[arg-type]
			raise

	def edit (self, paths: typing.Iterable[typing.Sequence[int]], **changes: typing.Any) -> int:

		"""Change noise parameters on one or more groups/containers and mark them dirty.

		Keyword names are :class:`~ambiance.noise.NoiseParameters` fields, plus
		``override_parent`` for containers. Paths that no longer resolve are
		skipped. Returns the number of nodes changed.

		Example:
			```python
			doc.edit([(0, 1), (0, 2)], density=70, threshold=10)
			```
		"""

		unknown = set(changes) - _NOISE_FIELDS - {"override_parent"}

		if unknown:
			raise ValueError(f"Unknown parameters: {sorted(unknown)}")

		noise_changes = {key: value for key, value in changes.items() if key in _NOISE_FIELDS}
		edited = 0

		for path in paths:

			node = self.resolve(path)

			if not isinstance(node, (Group, Container)):
				continue

			if noise_changes:
				node.noise = dataclasses.replace(node.noise, **noise_changes)

			if "override_parent" in changes and isinstance(node, Container):
				node.override_parent = bool(changes["override_parent"])

			node.mark_dirty()
			edited += 1

		return edited

	@classmethod
	def from_dict (cls, document: typing.Optional[typing.Sequence[typing.Mapping[str, typing.Any]]]) -> "Hierarchy":

		"""Build a tree from nested mappings, such as the ``document:`` list of a YAML config.

		Each mapping has a ``type`` (``folder``, ``group`` or ``container``) and
		a ``name``. Folders list ``children``, groups list ``containers``, and
		groups and containers may carry a ``noise`` mapping. Containers take
		``override_parent`` and ``items`` (names, or mappings with ``name``,
		``length`` and ``areas``).
		"""

		return cls(_node_from_dict(entry) for entry in (document or []))  # type: ignore[misc]


def _item_from_dict (entry: typing.Any) -> Item:

	if isinstance(entry, str):
		return Item(name=entry)

	areas = [(float(start), float(end)) for start, end in entry.get("areas", [])]

	return Item(name=str(entry["name"]), length=float(entry.get("length", 0.0)), areas=areas)


def _node_from_dict (entry: typing.Mapping[str, typing.Any]) -> Node:

	kind = str(entry.get("type", "")).lower()
	name = str(entry.get("name", kind.title() or "Untitled"))

	if kind == "folder":
		return Folder(name=name, children=[_node_from_dict(child) for child in entry.get("children", [])])  # type: ignore[misc]

	if kind == "group":
		containers = [_node_from_dict({"type": "container", **child}) for child in entry.get("containers", [])]

		if not all(isinstance(child, Container) for child in containers):
			raise ValueError(f"Group {name!r} may only contain containers")

		return Group(
			name = name,
			noise = ambiance.noise.NoiseParameters.from_dict(entry.get("noise")),
			containers = containers  # type: ignore[arg-type]
		)

	if kind == "container":
		return Container(
			name = name,
			noise = ambiance.noise.NoiseParameters.from_dict(entry.get("noise")),
			override_parent = bool(entry.get("override_parent", False)),
			items = [_item_from_dict(item) for item in entry.get("items", [])]
		)

	raise ValueError(f"Unknown node type {entry.get('type')!r}")
