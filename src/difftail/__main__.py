from difftail._cli import main

main()
