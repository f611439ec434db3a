from gradstream.data.loader import load_csv, save_csv
from gradstream.data.online_scaler import OnlineScaler
from gradstream.data.stream_loader import StreamLoader
