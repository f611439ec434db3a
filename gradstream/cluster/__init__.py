from gradstream.cluster.kmeans import KMeans
from gradstream.cluster.knn import KNN
from gradstream.cluster.triangle_kmeans import TrainingState, TriangleKMeans
