# Controllers package init
