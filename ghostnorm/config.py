import numbers

from ghostnorm.exceptions import ConfigurationError
from ghostnorm.util.batching import check_virtual_batch_size
from ghostnorm.util.easydict import EasyDict

# The normalization defaults are those of tf.keras.layers.BatchNormalization
DEFAULTS = dict(
    virtual_batch_size=128, axis=-1, center=True, scale=True, epsilon=1e-3, momentum=0.99)
NORM_OPTION_NAMES = ('axis', 'center', 'scale', 'epsilon', 'momentum')


class GhostBatchNormConfig(EasyDict):
    """Options of a ghost batch normalization layer.

    `virtual_batch_size` is the target size of the ghost batches. The other options belong
    to the wrapped `BatchNormalization` and are passed to it unchanged. Every assignment is
    validated, so an instance never holds an invalid value.
    """

    def __init__(self, d=None, **kwargs):
        options = dict(DEFAULTS)
        options.update(d or {})
        options.update(kwargs)
        super().__init__(options)

    def __setattr__(self, name, value):
        if name not in DEFAULTS:
            raise ConfigurationError(name, value, 'unknown option')
        super().__setattr__(name, _validate_option(name, value))

    __setitem__ = __setattr__

    def update(self, e=None, **f):
        # Validate everything first, so a failed update changes nothing
        validated = type(self)(self, **dict(e or {}, **f))
        super().update(validated)

    def pop(self, k, d=None):
        raise ConfigurationError(k, self.get(k, d), 'options cannot be removed')

    def replace(self, **options):
        """Returns a copy with the given options overridden."""
        return type(self)(self, **options)

    def norm_options(self):
        """Keyword arguments for the wrapped `BatchNormalization` layer."""
        return {name: self[name] for name in NORM_OPTION_NAMES}

    @classmethod
    def from_batch_normalization(cls, layer, virtual_batch_size=DEFAULTS['virtual_batch_size']):
        layer_config = layer.get_config()
        return cls(
            {name: layer_config[name] for name in NORM_OPTION_NAMES},
            virtual_batch_size=virtual_batch_size)


def _validate_option(name, value):
    if name == 'virtual_batch_size':
        return check_virtual_batch_size(value)

    if name == 'axis':
        if isinstance(value, (list, tuple)):
            if len(value) == 1:
                return _validate_option(name, value[0])
            return [_validate_option(name, a) for a in value]
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise ConfigurationError(name, value, 'must be an integer or a list of integers')
        return int(value)

    if name in ('center', 'scale'):
        if value not in (True, False):
            raise ConfigurationError(name, value, 'must be a boolean')
        return bool(value)

    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(name, value, 'must be a number')
    if name == 'epsilon' and not value > 0:
        raise ConfigurationError(name, value, 'must be positive')
    if name == 'momentum' and not 0 <= value <= 1:
        raise ConfigurationError(name, value, 'must be between 0 and 1')
    return float(value)
