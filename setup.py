from setuptools import setup
import os

try:
    dependencies_managed_by_conda = os.environ['DEPENDENCIES_MANAGED_BY_CONDA'] == '1'
except KeyError:
    dependencies_managed_by_conda = False

setup(
    name='ghostnorm',
    version='0.1.0',
    author='István Sárándi',
    author_email='sarandi@vision.rwth-aachen.de',
    packages=['ghostnorm', 'ghostnorm.layers', 'ghostnorm.util'],
    scripts=[],
    license='LICENSE',
    description='Ghost batch normalization for Keras',
    long_description='Ghostnorm provides a Keras layer that splits each training batch into '
                     'smaller ghost batches and normalizes them separately, with a shared '
                     'BatchNormalization layer, then concatenates the results in the '
                     'original order.',
    python_requires='>=3.8',
    install_requires=[] if dependencies_managed_by_conda else [
        'tensorflow',
        'numpy',
        'simplepyutils',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
