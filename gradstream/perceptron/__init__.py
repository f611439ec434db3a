from gradstream.perceptron.kernel_perceptron import KernelPerceptron
from gradstream.perceptron.perceptron import Perceptron
