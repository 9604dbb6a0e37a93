from ghostnorm.util.easydict import EasyDict
from ghostnorm.util.batching import batchify, group_sizes, num_ghost_batches, split
