class GhostNormError(Exception):
    pass


class ConfigurationError(GhostNormError, ValueError):
    def __init__(self, name, value=None, reason=None):
        super().__init__()
        self.name = name
        self.value = value
        self.reason = reason

    def __str__(self):
        if self.reason is None:
            return str(self.name)
        return f"Invalid value for {self.name}: {self.value!r} ({self.reason})"


class ShapeError(GhostNormError, ValueError):
    def __init__(self, message, shape=None):
        super().__init__()
        self.message = message
        self.shape = shape

    def __str__(self):
        if self.shape is None:
            return self.message
        return f"{self.message} (got shape {self.shape})"


class UninitializedStateError(GhostNormError, RuntimeError):
    def __init__(self, layer_name):
        super().__init__()
        self.layer_name = layer_name

    def __str__(self):
        return (f"Layer {self.layer_name} has no normalization variables yet. "
                f"Call it through __call__ or build() it before calling call().")
