from .sparse_convolution import SparseConvolutionLayer

__all__ = ["SparseConvolutionLayer"]
