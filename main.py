from bencoding import DecodeError
from torrent import MetainfoError, parse_torrent
import logging

# A multi-file torrent with a single file at path1/path2
EXAMPLE_TORRENT = (b"d8:announce11:example.com4:infod4:name9:blindspot12:piece lengthi20e"
                   b"6:pieces5:hello5:filesld6:lengthi10e4:pathl5:path15:path2eeeee")

def main(data: bytes = EXAMPLE_TORRENT) -> int:
    logging.basicConfig(level=logging.INFO)

    try:
        torrent = parse_torrent(data)
    except (DecodeError, MetainfoError) as e:
        logging.error(f"Error while parsing torrent: {e}")
        return 1

    print(torrent)
    for f in torrent.info.files or []:
        print(f"  {'/'.join(f.path)} ({f.length} bytes)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
