from gradstream.linear.least_squares import LeastSquares
from gradstream.linear.local_linear import LocalLinear
from gradstream.linear.logistic import Logistic
from gradstream.linear.softmax import Softmax
