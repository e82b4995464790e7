from ratepoll.main import main

main()
