from rna_fold.scripts.predict_rna import main

if __name__ == '__main__':
    raise SystemExit(main())
