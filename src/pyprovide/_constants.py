"""Internal constants shared across the library."""

#: Number of applied actions a store keeps in ``ReducerStore.history``.
DEFAULT_HISTORY_LIMIT = 100

#: Longest string (in characters) emitted by debug state summaries.
DEFAULT_LOG_MAX_STRING = 200

#: Most items of a sequence or mapping emitted by debug state summaries.
DEFAULT_LOG_MAX_ITEMS = 20

#: Prefix of every environment variable read by ``ProviderConfig.from_env``.
ENV_PREFIX = "PYPROVIDE_"
