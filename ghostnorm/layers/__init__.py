from ghostnorm.layers.ghost_batchnorm import GhostBatchNormalization
