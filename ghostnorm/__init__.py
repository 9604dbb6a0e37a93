from ghostnorm.config import GhostBatchNormConfig
from ghostnorm.exceptions import (
    ConfigurationError, GhostNormError, ShapeError, UninitializedStateError)
from ghostnorm.layers.ghost_batchnorm import GhostBatchNormalization
from ghostnorm.util.batching import batchify, group_sizes, num_ghost_batches, split
import ghostnorm.layers as layers
from ghostnorm.util.easydict import EasyDict
