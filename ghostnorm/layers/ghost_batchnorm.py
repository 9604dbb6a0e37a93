import tensorflow as tf
from simplepyutils import logger

import ghostnorm.util.batching as batching
from ghostnorm.config import DEFAULTS, GhostBatchNormConfig
from ghostnorm.exceptions import ShapeError, UninitializedStateError


@tf.keras.utils.register_keras_serializable(package='ghostnorm')
class GhostBatchNormalization(tf.keras.layers.Layer):
    """Splits the batch into virtual batches and normalizes them separately.

    In training mode the batch is cut into ghost batches of `virtual_batch_size` samples
    (the last one may be smaller), and a wrapped `BatchNormalization` layer normalizes each
    of them with its own mean and variance. All ghost batches share gamma and beta, and the
    moving statistics get updated once per ghost batch, in batch order. In inference mode the
    moving statistics are used, so the whole batch is normalized at once.

    With a statically known batch size the ghost batches are unrolled at trace time.
    Otherwise (e.g. a ragged last batch in `fit`), they are processed in a `tf.while_loop`
    with the number of ghost batches computed at run time.
    """

    def __init__(
            self, virtual_batch_size=DEFAULTS['virtual_batch_size'], axis=DEFAULTS['axis'],
            center=DEFAULTS['center'], scale=DEFAULTS['scale'], epsilon=DEFAULTS['epsilon'],
            momentum=DEFAULTS['momentum'], config=None, **kwargs):
        super().__init__(**kwargs)
        if config is None:
            config = GhostBatchNormConfig(
                virtual_batch_size=virtual_batch_size, axis=axis, center=center, scale=scale,
                epsilon=epsilon, momentum=momentum)
        else:
            config = GhostBatchNormConfig(config)

        self._virtual_batch_size = config.virtual_batch_size
        self.batch_norm = tf.keras.layers.BatchNormalization(
            name='batch_normalization', **config.norm_options())

    @classmethod
    def from_batch_normalization(
            cls, layer, virtual_batch_size=DEFAULTS['virtual_batch_size'], **kwargs):
        """Creates a ghost variant of `layer` with the same normalization options."""
        config = GhostBatchNormConfig.from_batch_normalization(layer, virtual_batch_size)
        return cls(config=config, **kwargs)

    @property
    def virtual_batch_size(self):
        return self._virtual_batch_size

    @virtual_batch_size.setter
    def virtual_batch_size(self, value):
        self.set_virtual_batch_size(value)

    def set_virtual_batch_size(self, virtual_batch_size):
        """Changes the ghost batch size used by subsequent calls.

        Functions already traced with `tf.function` keep the size they were traced with.
        """
        virtual_batch_size = batching.check_virtual_batch_size(virtual_batch_size)
        if virtual_batch_size != self._virtual_batch_size:
            logger.debug(
                f'{self.name}: virtual batch size changed from {self._virtual_batch_size} '
                f'to {virtual_batch_size}')
        self._virtual_batch_size = virtual_batch_size

    @property
    def ghost_config(self):
        return GhostBatchNormConfig.from_batch_normalization(
            self.batch_norm, self._virtual_batch_size)

    @property
    def moving_mean(self):
        return self.batch_norm.moving_mean

    @property
    def moving_variance(self):
        return self.batch_norm.moving_variance

    @property
    def gamma(self):
        return self.batch_norm.gamma

    @property
    def beta(self):
        return self.batch_norm.beta

    def build(self, input_shape):
        self.batch_norm.build(input_shape)
        logger.debug(
            f'Built {self.name} for input shape {input_shape} with virtual batch size '
            f'{self._virtual_batch_size}')
        super().build(input_shape)

    def split(self, inputs):
        """Returns the ghost batches that a training-mode call would normalize."""
        batch_size = batching.leading_size(inputs)
        return batching.split(inputs, batching.group_sizes(batch_size, self._virtual_batch_size))

    def call(self, inputs, training=None):
        if not self.batch_norm.built:
            raise UninitializedStateError(self.name)
        if inputs.shape.rank is not None and inputs.shape.rank > 0 and inputs.shape[0] == 0:
            raise ShapeError('Cannot normalize an empty batch', shape=inputs.shape)

        if not training:
            return self.batch_norm(inputs, training=False)

        if inputs.shape[0] is None:
            return self._call_dynamic_batch(inputs)

        ghost_batches = self.split(inputs)
        return batching.batchify([self.batch_norm(x, training=True) for x in ghost_batches])

    def _call_dynamic_batch(self, inputs):
        """Training-mode forward pass for a batch size only known at run time."""
        virtual_batch_size = self._virtual_batch_size
        batch_size = tf.shape(inputs)[0]
        tf.debugging.assert_positive(batch_size, message='Cannot normalize an empty batch')
        n_groups = (batch_size + virtual_batch_size - 1) // virtual_batch_size
        outputs = tf.TensorArray(inputs.dtype, size=n_groups, infer_shape=False)

        def body(i, outputs):
            ghost_batch = inputs[i * virtual_batch_size:(i + 1) * virtual_batch_size]
            return i + 1, outputs.write(i, self.batch_norm(ghost_batch, training=True))

        # One iteration at a time, so the moving statistics update in ghost batch order
        _, outputs = tf.while_loop(
            lambda i, _: i < n_groups, body, [tf.constant(0), outputs],
            parallel_iterations=1)
        result = outputs.concat()
        result.set_shape(inputs.shape)
        return result

    def compute_output_shape(self, input_shape):
        return input_shape

    def get_config(self):
        config = super().get_config()
        config.update(self.ghost_config)
        return config
