"""Play Sambung Kata in the terminal. Same options as the `sambung-kata` command."""
from sambung_kata.cli import main

if __name__ == "__main__":
    main()
