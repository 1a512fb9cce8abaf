"""Built-in ccgrant sub-commands (``token`` and ``profile``)."""
