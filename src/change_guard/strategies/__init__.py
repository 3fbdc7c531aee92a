"""Resolution strategies for detected conflicts."""

from change_guard.strategies.merge_resolvers import (
    MergeResolvers,
    merge_dependencies,
    merge_imports,
)

__all__ = ["MergeResolvers", "merge_dependencies", "merge_imports"]
