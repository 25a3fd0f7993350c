# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

from .ironfit import main

if __name__ == "__main__":
    main()
